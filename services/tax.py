#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Tax rate lookup.

Rates are in basis points (2000 = 20%). The rate in effect at purchase time is
frozen onto each order item for invoicing; totals are tax-inclusive and are
not changed by it.
"""

import dataclasses


@dataclasses.dataclass(frozen=True)
class TaxRate:
  country: str
  rate_bps: int
  name: str


_DEFAULT_COUNTRY = "TR"

_TAX_RATES = {
    "TR": TaxRate(country="TR", rate_bps=2000, name="KDV"),
}


def get_tax_rate(country: str = _DEFAULT_COUNTRY) -> TaxRate:
  """Returns the rate for a country, defaulting to Turkish KDV."""
  return _TAX_RATES.get((country or "").upper(), _TAX_RATES[_DEFAULT_COUNTRY])

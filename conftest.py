"""Pytest plumbing for absl-based tests run in a single process.

`config` is imported first so its flag definitions are registered before other
modules (e.g. `import_csv`) define overlapping flags, and flags are marked as
parsed since pytest does not go through `absltest.main()`.
"""

from absl import flags
import config  # noqa: F401

if not flags.FLAGS.is_parsed():
  flags.FLAGS.mark_as_parsed()

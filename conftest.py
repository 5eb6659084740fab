"""Global pytest configuration."""

import os

# Keep tests independent of any ROUTEPLAN_* variables in the developer's shell
for _name in [n for n in os.environ if n.startswith("ROUTEPLAN_")]:
    del os.environ[_name]

"""
Backends that read and write configuration targets.

- `env`: environment variables and shell templates
- `flag`: command-line flags through argparse
- `file`: TOML, JSON and YAML documents
"""

from cfgtree.encoding import env, file, flag

__all__ = ["env", "file", "flag"]

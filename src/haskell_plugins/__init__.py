"""haskell-plugins - per-user, per-project plugins for Haskell development tools.

Developers request optional plugins for test runners, benchmark harnesses and
code generators in untracked YAML files. The build tool merges those requests,
resolves them to concrete packages, overlays them onto the in-memory package
manifest and advertises them to consumer tools through environment variables.

Key modules:

- :mod:`haskell_plugins.config` - Layered plugin-request files and settings
- :mod:`haskell_plugins.merge` - Precedence merge into per-namespace plugin sets
- :mod:`haskell_plugins.resolver` - Hackage and GitHub reference resolution
- :mod:`haskell_plugins.mode` - Per-invocation injection eligibility
- :mod:`haskell_plugins.manifest` - In-memory manifest overlay
- :mod:`haskell_plugins.environment` - ``HASKELL_PLUGINS_*`` encoding
- :mod:`haskell_plugins.session` - The whole pipeline for one invocation
"""

__version__ = "0.1.0"

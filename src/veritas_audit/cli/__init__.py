"""
veritas_audit.cli — Click command line for operators.

Modules:
    main          Root group and command wiring
    _append       append
    _verify       verify
    _recent       recent
    _config_cmd   config show | validate | init
"""

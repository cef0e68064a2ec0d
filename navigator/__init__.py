"""Home Server Navigator — discover, catalog and link the services on one host.

Quickstart::

    from navigator.config import NavigatorConfig
    from navigator.server import create_app

    app = create_app(NavigatorConfig(data_file="data/services.json"))
"""

__version__ = "0.1.0"

"""
The process-wide table of API builders.

Modules that provide an API register a builder function at import time::

    apiconf = { "greeting": "hello" }

    def build_api():
        return API("/greet", "greeter", routes=[...])

    register("greeter", build_api, apiconf)

When a :py:class:`~vertex.server.Server` initializes its APIs (see
:py:meth:`~vertex.server.Server.init_apis`), each registered config dictionary is first
updated with the matching ``apis.<name>`` section of the server configuration and then the
builder is called.  Registration is only allowed before the table is frozen, which happens when
a server begins serving.
"""
import logging
from collections import OrderedDict
from collections.abc import Mapping, MutableMapping
from typing import Callable

from . import StateException, ConfigurationException
from .config import merge_config

__all__ = [ "register", "api_builders", "build_apis", "freeze", "is_frozen", "reset" ]

log = logging.getLogger("vertex").getChild("registry")

class _Builder(object):

    def __init__(self, name: str, builder: Callable, config: MutableMapping=None):
        self.name = name
        self.builder = builder
        self.config = config

api_builders = OrderedDict()
_frozen = False

def register(name: str, builder: Callable, config: MutableMapping=None):
    """
    register a function that builds a named API.

    :param str name:       the API's name; it selects the API's section in the configuration
    :param builder:        a function taking no arguments that returns an API
    :param dict config:    a mutable dictionary of default configuration values for the API; it
                           is updated in place with the configured values before the builder is
                           called
    :raises StateException:  if the registry has already been frozen
    """
    if _frozen:
        raise StateException("Cannot register API %s: registration is closed" % name)
    if name in api_builders:
        log.warning("Replacing previously registered builder for API %s", name)
    api_builders[name] = _Builder(name, builder, config)

def bind_config(name: str, target: MutableMapping, config: Mapping):
    """
    update an API's config dictionary with the values from the ``apis.<name>`` section of the
    given server configuration
    """
    apicfg = config.get('apis', {}).get(name)
    if apicfg is None:
        return target
    if not isinstance(apicfg, Mapping):
        raise ConfigurationException("apis.%s: configuration must be an object" % name)
    merged = merge_config(apicfg, target)
    target.clear()
    target.update(merged)
    return target

def build_apis(config: Mapping=None) -> list:
    """
    bind the configuration to and call every registered builder, returning the built APIs in
    registration order
    """
    config = config or {}
    out = []
    for b in api_builders.values():
        if b.config is not None:
            bind_config(b.name, b.config, config)
        api = b.builder()
        if b.config is not None and not api.config:
            api.config = b.config
        log.debug("Built API %s", b.name)
        out.append(api)
    return out

def freeze():
    """
    close the registry to further registrations
    """
    global _frozen
    _frozen = True

def is_frozen() -> bool:
    return _frozen

def reset():
    """
    empty and reopen the registry (intended for testing)
    """
    global _frozen
    api_builders.clear()
    _frozen = False

"""
Loading configuration data and setting up logging for a vertex server.

Configuration is a (possibly nested) dictionary, usually read from a YAML or JSON file with
:py:func:`load_from_file`.  A server recognizes these top-level properties:

``server``
    parameters for the server itself:  ``listen`` (the address to listen on, e.g. ":8686"),
    ``include_headers`` (headers added to every response)
``logging``
    ``logfile``, ``logdir``, and ``loglevel``; see :py:func:`configure_log`
``harness``
    ``timeout``:  seconds the self-test harness waits on each request
``apis``
    an object whose properties are API names; each value is bound to the API of that name
    (see :py:func:`vertex.registry.register`)
"""
import os, sys, json, logging
from collections.abc import Mapping
from copy import deepcopy

import yaml

from . import ConfigurationException

__all__ = [ "load_from_file", "merge_config", "configure_log", "ConfigurationException",
            "LOG_FORMAT", "DEF_LOGFILE" ]

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
DEF_LOGFILE = "vertex.log"
global_logdir = None
global_logfile = None

def load_from_file(configfile: str) -> dict:
    """
    read configuration data from a file.  Files ending in ".json" are parsed as JSON; all
    others are parsed as YAML.

    :raises ConfigurationException:  if the file cannot be parsed or does not contain an object
    :raises IOError:  if the file cannot be opened
    """
    with open(configfile) as fd:
        try:
            if configfile.endswith('.json'):
                data = json.load(fd)
            else:
                data = yaml.safe_load(fd)
        except (ValueError, yaml.YAMLError) as ex:
            raise ConfigurationException("%s: config parsing error: %s" % (configfile, str(ex))) from ex

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationException("%s: configuration is not an object" % configfile)
    return data

def merge_config(primary: Mapping, defconf: Mapping) -> dict:
    """
    deep-merge two configurations, with values from ``primary`` overriding those in ``defconf``.
    Neither input is modified.
    """
    out = deepcopy(dict(defconf))
    for key, val in primary.items():
        if isinstance(val, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_config(val, out[key])
        else:
            out[key] = deepcopy(val)
    return out

def _parse_level(level):
    if level is None or isinstance(level, int):
        return level
    lev = logging.getLevelName(str(level).upper())
    if not isinstance(lev, int):
        raise ConfigurationException("Unrecognized log level: " + str(level))
    return lev

def configure_log(logfile: str=None, level=None, format: str=None, config: Mapping=None,
                  addstderr: bool=False):
    """
    configure the root logger to record messages to a file (and optionally to standard error).

    :param str logfile:  the log file to write to; a relative path is taken as relative to the
                         configured ``logdir``.  If not given, the ``logfile`` from the
                         configuration is used, or else "vertex.log".
    :param level:        the minimum level to record (a number or a name like "DEBUG"); defaults
                         to the configured ``loglevel`` or INFO.
    :param str format:   the message format; default: :py:data:`LOG_FORMAT`
    :param dict config:  the full server configuration; its ``logging`` object is consulted
    :param bool addstderr:  if True, also send messages to standard error
    """
    global global_logdir, global_logfile
    logcfg = (config or {}).get('logging', {})

    if not logfile:
        logfile = logcfg.get('logfile', DEF_LOGFILE)
    if level is None:
        level = logcfg.get('loglevel', logging.INFO)
    level = _parse_level(level)
    if not format:
        format = logcfg.get('format', LOG_FORMAT)

    logdir = logcfg.get('logdir')
    if logdir and not os.path.isabs(logfile):
        logfile = os.path.join(logdir, logfile)
    if os.path.dirname(logfile) and not os.path.isdir(os.path.dirname(logfile)):
        raise ConfigurationException("Log directory does not exist: " + os.path.dirname(logfile))
    global_logdir = os.path.dirname(os.path.abspath(logfile))
    global_logfile = logfile

    rootlog = logging.getLogger()
    rootlog.setLevel(level)
    fmtr = logging.Formatter(format)

    hdlr = logging.FileHandler(logfile)
    hdlr.setLevel(level)
    hdlr.setFormatter(fmtr)
    rootlog.addHandler(hdlr)

    if addstderr:
        hdlr = logging.StreamHandler(sys.stderr)
        hdlr.setLevel(level)
        hdlr.setFormatter(fmtr)
        rootlog.addHandler(hdlr)

    return rootlog

"""
The ``vertex`` command:  run a server for the APIs provided by one or more Python modules.

Each module named on the command line is imported; importing it is expected to register its
APIs via :py:func:`vertex.registry.register`.  For example::

    vertex -c server.yml -L :8080 myservice.api
"""
import os, sys, logging, importlib
from argparse import ArgumentParser

from . import ConfigurationException, __version__
from . import config as cfgmod
from .server import Server

__all__ = [ "define_opts", "main", "CommandFailure" ]

class CommandFailure(Exception):
    """
    a failure while executing the command; the command exits with the given status.  The
    following exit statuses are used:
      * 1:  general failure
      * 2:  error in command-line arguments
      * 3:  a module providing APIs could not be imported
      * 6:  a configuration error
    """

    def __init__(self, message: str, exstat: int=1, cause: Exception=None):
        super(CommandFailure, self).__init__(message)
        self.stat = exstat
        self.cause = cause

def define_opts(progname: str="vertex", parser: ArgumentParser=None) -> ArgumentParser:
    """
    define the command-line arguments for the vertex command
    """
    if not parser:
        parser = ArgumentParser(progname, description="serve vertex APIs")

    parser.add_argument("modules", metavar="MODULE", nargs="+",
                        help="a module to import that registers the APIs to serve")
    parser.add_argument("-c", "--config", type=str, dest='conf', metavar='FILE',
                        help="read configuration from FILE (YAML or JSON)")
    parser.add_argument("-L", "--listen", type=str, dest='listen', metavar='ADDR',
                        help="listen on ADDR (e.g. ':8686'), over-riding the configuration")
    parser.add_argument("-l", "--logfile", type=str, dest='logfile', metavar='FILE',
                        help="log messages to FILE, over-riding the configured logfile")
    parser.add_argument("-D", "--debug", action="store_true", dest='debug',
                        help="send DEBUG level messages to the log file")
    parser.add_argument("-v", "--verbose", action="store_true", dest='verbose',
                        help="also print log messages to standard error")
    parser.add_argument("-V", "--version", action="version", version="%(prog)s " + __version__)
    return parser

def configure(opts) -> dict:
    """
    load the configuration and set up logging according to the parsed command-line options
    """
    cfg = {}
    if opts.conf:
        try:
            cfg = cfgmod.load_from_file(opts.conf)
        except EnvironmentError as ex:
            raise CommandFailure("problem reading config file, %s: %s" % (opts.conf, ex.strerror),
                                 6, ex)
        except ConfigurationException as ex:
            raise CommandFailure(str(ex), 6, ex)

    level = logging.DEBUG if opts.debug else None
    try:
        cfgmod.configure_log(opts.logfile, level, config=cfg, addstderr=opts.verbose)
    except ConfigurationException as ex:
        raise CommandFailure(str(ex), 6, ex)
    return cfg

def load_modules(modules):
    for modname in modules:
        try:
            importlib.import_module(modname)
        except ImportError as ex:
            raise CommandFailure("Unable to import API module %s: %s" % (modname, str(ex)), 3, ex)

def build_server(opts, cfg) -> Server:
    load_modules(opts.modules)
    srv = Server(opts.listen, cfg)
    try:
        srv.init_apis()
    except ConfigurationException as ex:
        raise CommandFailure(str(ex), 6, ex)
    if not srv.apis:
        raise CommandFailure("No APIs were registered by " + ", ".join(opts.modules), 1)
    return srv

def main(args=None, progname: str=None):
    """
    run the vertex command with the given arguments
    """
    if not progname:
        progname = os.path.basename(sys.argv[0]) or "vertex"
    parser = define_opts(progname)
    opts = parser.parse_args(args)
    log = logging.getLogger(progname)

    try:
        cfg = configure(opts)
        srv = build_server(opts, cfg)
        srv.run()
    except CommandFailure as ex:
        log.critical(str(ex))
        print("%s: %s" % (progname, str(ex)), file=sys.stderr)
        return ex.stat
    except KeyboardInterrupt:
        log.info("Interrupted; shutting down")
    return 0

if __name__ == '__main__':
    sys.exit(main())

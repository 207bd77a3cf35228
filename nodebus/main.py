"""
nodebus — Entry Point

Runs the example nodes on their own threads and observes the bus:

    nodebus run talker listener
    nodebus topic list -t --with talker listener
    nodebus topic echo topic --with talker
    nodebus topic hz vector_topic --with vector_talker
    nodebus topic plot vector_topic --field x --field y --with vector_talker
    nodebus interface show Vector3
"""
import argparse
import signal
import sys
import time
from threading import Event
from typing import Iterable, List, Optional

from nodebus.core.context import Context
from nodebus.core.executor import NodeThread, start_threads, stop_threads
from nodebus.core.node import Node
from nodebus.nodes import NODES, create_example
from nodebus.utils.config import Config
from nodebus.utils.constants import DEFAULT_HZ_WINDOW
from nodebus.utils.failures import NodebusError
from nodebus.utils.logger import Logger


def _positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="nodebus", description="nodebus - in-process publish/subscribe tutorial runtime")
    parser.add_argument('--config-dir', type=str, default=None, help='Directory of JSON config files')
    commands = parser.add_subparsers(dest='command', required=True)

    launch = argparse.ArgumentParser(add_help=False)
    launch.add_argument('--with', dest='with_nodes', nargs='+', default=[], choices=sorted(NODES),
                        metavar='NODE', help='Example nodes to start first')
    launch.add_argument('--duration', '-d', type=float, default=None,
                        help='Stop after this many seconds (default: run until interrupted)')

    run = commands.add_parser('run', help='Run example nodes until interrupted')
    run.add_argument('nodes', nargs='+', choices=sorted(NODES), metavar='NODE',
                     help=f"One or more of: {', '.join(sorted(NODES))}")
    run.add_argument('--duration', '-d', type=float, default=None)

    topic = commands.add_parser('topic', help='Observe topics')
    actions = topic.add_subparsers(dest='action', required=True)

    topic_list = actions.add_parser('list', parents=[launch], help='List active topics')
    topic_list.add_argument('--show-types', '-t', action='store_true')

    topic_info = actions.add_parser('info', parents=[launch], help="Show a topic's type and endpoints")
    topic_info.add_argument('topic')

    topic_echo = actions.add_parser('echo', parents=[launch], help='Print incoming messages')
    topic_echo.add_argument('topic')
    topic_echo.add_argument('--once', action='store_true', help='Exit after the first message')

    topic_hz = actions.add_parser('hz', parents=[launch], help='Report the message rate')
    topic_hz.add_argument('topic')
    topic_hz.add_argument('--window', '-w', type=_positive_int, default=DEFAULT_HZ_WINDOW)

    topic_plot = actions.add_parser('plot', parents=[launch], help='Live plot of numeric fields')
    topic_plot.add_argument('topic')
    topic_plot.add_argument('--field', '-f', action='append', default=None,
                            help='Field to plot (repeatable, default: all numeric fields)')

    interface = commands.add_parser('interface', help='Inspect message types')
    interface_actions = interface.add_subparsers(dest='action', required=True)
    interface_actions.add_parser('list', help='List message types')
    interface_show = interface_actions.add_parser('show', help='Show the fields of a message type')
    interface_show.add_argument('type')

    return parser.parse_args(argv)


class NodebusApp:
    """
    Orchestrator for the CLI.

    Wires together:
      - the runtime Context (topic bus + registry)
      - example nodes, each spinning on its own NodeThread
      - observer nodes created by the topic commands
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        Logger.setup(self.config.get('logging', {}))
        self.logger = Logger("nodebus")

        self.stop_event = Event()
        self.context = Context(self.config).init()
        self.examples = []
        self.threads: List[NodeThread] = []

    def launch(self, names: Iterable[str]) -> None:
        """Create the named example nodes (they start spinning in ``start``)."""
        for name in names:
            self.examples.append(create_example(name, self.context, self.config))
            self.logger.info(f"Loaded example node: {name}")

    def start(self, observers: Iterable[Node] = ()) -> None:
        """Spin every example node and observer on its own thread."""
        nodes = [example.node for example in self.examples] + list(observers)
        self.threads = start_threads(nodes)
        self.logger.debug(f"{len(self.threads)} node thread(s) running")

    def setup_signals(self) -> None:
        """Handle OS signals for graceful shutdown."""
        def handler(sig, frame):
            self.logger.info("Shutdown signal received")
            self.stop_event.set()
        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)

    def wait(self, duration: Optional[float] = None, until=None, every: float = 0.1,
             on_tick=None) -> None:
        """
        Block the main thread until stopped, ``duration`` elapsed, or ``until()`` is true.

        ``on_tick`` runs about every ``every`` seconds while waiting.
        """
        deadline = None if duration is None else time.monotonic() + duration
        while not self.stop_event.wait(every):
            if until is not None and until():
                return
            if deadline is not None and time.monotonic() >= deadline:
                return
            if on_tick is not None:
                on_tick()

    def stop(self) -> None:
        """Gracefully shut down every node thread and the context."""
        self.stop_event.set()
        stop_threads(self.threads)
        self.threads = []
        self.context.shutdown()
        self.logger.debug("nodebus stopped")


def _run(app: NodebusApp, args) -> int:
    app.launch(args.nodes)
    app.start()
    app.logger.info("Running; press Ctrl+C to stop")
    app.wait(args.duration)
    return 0


def _topic(app: NodebusApp, args) -> int:
    from nodebus.tools import topic as topic_tools

    app.launch(args.with_nodes)
    bus = app.context.bus

    if args.action == 'list':
        for line in topic_tools.list_topics(bus, show_types=args.show_types):
            print(line)
        return 0

    if args.action == 'info':
        print(topic_tools.topic_info(bus, args.topic))
        return 0

    if args.action == 'echo':
        echo = topic_tools.TopicEcho(app.context, args.topic, max_messages=1 if args.once else None)
        app.start([echo.node])
        app.wait(args.duration, until=lambda: not echo.node.ok())
        return 0

    if args.action == 'hz':
        hz = topic_tools.TopicHz(app.context, args.topic, window=args.window)
        app.start([hz.node])
        next_report = [time.monotonic() + 1.0]

        def report():
            if time.monotonic() >= next_report[0]:
                print(hz.report(), flush=True)
                next_report[0] += 1.0

        app.wait(args.duration, on_tick=report)
        return 0

    if args.action == 'plot':
        from nodebus.tools.samples import PlotSubscriber
        from nodebus.tools.plot_window import show_plot

        plotter = PlotSubscriber(
            app.context, args.topic, fields=args.field,
            max_samples=app.config.get_int('tools.plot_samples', 500),
        )
        app.start([plotter.node])
        return show_plot(plotter, app.stop_event)

    return 2


def _interface(app: NodebusApp, args) -> int:
    registry = app.context.registry
    if args.action == 'list':
        for name in registry.names():
            print(name)
        return 0
    print(registry.describe(args.type))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    app = NodebusApp(Config(args.config_dir) if args.config_dir else None)
    app.setup_signals()

    handlers = {'run': _run, 'topic': _topic, 'interface': _interface}
    try:
        return handlers[args.command](app, args)
    except NodebusError as e:
        app.logger.error(f"{type(e).__name__}: {e.message}")
        return 1
    finally:
        app.stop()


if __name__ == "__main__":
    sys.exit(main())

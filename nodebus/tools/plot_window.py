"""Plot Window — a Qt window that shows a live plot of a topic's numeric fields.

Polls a SampleBuffer at ~30 fps and redraws a matplotlib canvas embedded in
the window. The subscriber feeding the buffer spins on its own NodeThread.
"""
from threading import Event
from typing import Optional

from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg
from matplotlib.figure import Figure

from PyQt6.QtCore import QTimer
from PyQt6.QtWidgets import QApplication, QMainWindow, QVBoxLayout, QWidget

from nodebus.tools.samples import PlotSubscriber
from nodebus.utils.constants import PLOT_REFRESH_MS
from nodebus.utils.logger import Logger


class PlotWindow(QMainWindow):
    """Live plot window.

    One line per plotted field against seconds since the plot started.
    The window should be created after the QApplication exists.
    """

    def __init__(self, plotter: PlotSubscriber, title: str = "nodebus | Topic Plot",
                 stop_event: Optional[Event] = None):
        super().__init__()
        self.plotter = plotter
        self.stop_event = stop_event
        self.logger = Logger("PlotWindow")

        # ── Window chrome ────────────────────────────────────────────
        self.setWindowTitle(f"{title} | {plotter.subscription.topic}")
        self.setMinimumSize(640, 480)
        self.resize(960, 540)

        # ── Canvas ───────────────────────────────────────────────────
        self.figure = Figure(tight_layout=True)
        self.canvas = FigureCanvasQTAgg(self.figure)
        self.axes = self.figure.add_subplot(111)
        self.axes.set_xlabel("time [s]")
        self.axes.set_title(plotter.subscription.topic)
        self.axes.grid(True)
        self.lines = {
            field: self.axes.plot([], [], label=field)[0]
            for field in plotter.buffer.fields
        }
        self.axes.legend(loc="upper right")

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.canvas)
        self.setCentralWidget(central)

        # ── Poll timer (~30 fps) ─────────────────────────────────────
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._refresh)
        self._timer.start(PLOT_REFRESH_MS)

        self.logger.info(f"Plotting {', '.join(plotter.buffer.fields)} from {plotter.subscription.topic}")

    def _refresh(self) -> None:
        """Copy the latest samples into the plot lines and redraw."""
        if self.stop_event is not None and self.stop_event.is_set():
            self.stop()
            QApplication.quit()
            return
        times, values = self.plotter.buffer.arrays()
        if times.size == 0:
            return
        for i, line in enumerate(self.lines.values()):
            line.set_data(times, values[:, i])
        self.axes.relim()
        self.axes.autoscale_view()
        self.canvas.draw_idle()

    def stop(self) -> None:
        self._timer.stop()
        self.close()


def show_plot(plotter: PlotSubscriber, stop_event: Optional[Event] = None) -> int:
    """Run a Qt event loop with a PlotWindow until it is closed or ``stop_event`` is set."""
    app = QApplication.instance() or QApplication([])
    window = PlotWindow(plotter, stop_event=stop_event)
    window.show()
    return app.exec()

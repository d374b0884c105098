"""
Window Monitor - Find the foreground fullscreen window
======================================================
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from .exceptions import WindowManagerError, WindowQueryError
from .topology import Extent

logger = logging.getLogger(__name__)

# Check if running on Wayland
IS_WAYLAND = (os.environ.get('XDG_SESSION_TYPE') == 'wayland' or
              os.environ.get('WAYLAND_DISPLAY') is not None)

# Try to import Xlib for X11 support
try:
    from Xlib import X, display
    from Xlib.error import DisplayError, XError
    XLIB_AVAILABLE = True
except ImportError:
    XLIB_AVAILABLE = False

# AT-SPI for native Wayland apps (PyGObject is a system package)
ATSPI_AVAILABLE = False
if IS_WAYLAND:
    try:
        import gi
        gi.require_version('Atspi', '2.0')
        from gi.repository import Atspi, GLib
        ATSPI_AVAILABLE = True
    except (ImportError, ValueError) as e:
        logger.debug(f"AT-SPI not available for Wayland: {e}")

FULLSCREEN = "fullscreen"


@dataclass(frozen=True)
class FullscreenState:
    """The one foreground fullscreen window."""
    extent: Extent
    app_name: str


class WindowHandle(ABC):
    """A window as seen by the window manager. Every query may raise WindowQueryError."""

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def state_set(self) -> Set[str]:
        """Lowercase state names, e.g. {"fullscreen", "maximized_vert"}."""
        ...

    @abstractmethod
    def geometry(self) -> Tuple[int, int, int, int]:
        """(x, y, width, height) in root coordinates."""
        ...


class WindowManager(ABC):
    """Read-only window manager queries."""

    @abstractmethod
    def windows(self) -> List[WindowHandle]:
        ...

    @abstractmethod
    def active_window(self) -> Optional[WindowHandle]:
        ...


class X11Window(WindowHandle):
    """EWMH window on an X11 display."""

    def __init__(self, manager: 'X11WindowManager', window_id: int):
        self._manager = manager
        self._window = manager._display.create_resource_object('window', window_id)
        self.window_id = window_id

    def __repr__(self):
        return f"X11Window(0x{self.window_id:x})"

    def _property(self, atom_name: str):
        prop = self._window.get_full_property(
            self._manager._atom(atom_name),
            X.AnyPropertyType
        )
        return prop.value if prop else None

    def name(self) -> str:
        """Window class and title joined, so ignore entries can match either."""
        try:
            wm_class = self._window.get_wm_class()
            window_class = wm_class[1] if wm_class else ""

            title = self._property('_NET_WM_NAME')
            if title:
                title = title.decode('utf-8', errors='replace')
            else:
                title = self._window.get_wm_name() or ""
        except XError as e:
            raise WindowQueryError(f"{self!r}: cannot read name: {e}") from e
        return " ".join(part for part in (window_class, title) if part)

    def state_set(self) -> Set[str]:
        try:
            atoms = self._property('_NET_WM_STATE')
            if not atoms:
                return set()
            names = (self._manager._display.get_atom_name(a) for a in atoms)
            return {n.replace('_NET_WM_STATE_', '', 1).lower() for n in names}
        except XError as e:
            raise WindowQueryError(f"{self!r}: cannot read state: {e}") from e

    def geometry(self) -> Tuple[int, int, int, int]:
        try:
            geom = self._window.get_geometry()

            # Walk up the window tree to accumulate x,y offsets to get absolute position
            abs_x, abs_y = 0, 0
            current = self._window
            root_id = self._manager._root.id
            while current and current.id != root_id:
                current_geom = current.get_geometry()
                abs_x += current_geom.x
                abs_y += current_geom.y
                current = current.query_tree().parent

            return abs_x, abs_y, geom.width, geom.height
        except XError as e:
            raise WindowQueryError(f"{self!r}: cannot read geometry: {e}") from e


class X11WindowManager(WindowManager):
    """
    Window queries over EWMH root properties.

    windows() walks _NET_CLIENT_LIST_STACKING top-most first, so the scan order
    is the stacking order.
    """

    def __init__(self):
        if not XLIB_AVAILABLE:
            raise WindowManagerError("python-xlib not available")
        try:
            self._display = display.Display()
        except (DisplayError, OSError) as e:
            raise WindowManagerError(f"Cannot connect to X display: {e}") from e
        self._root = self._display.screen().root
        self._atoms = {}

    def _atom(self, name: str) -> int:
        if name not in self._atoms:
            self._atoms[name] = self._display.intern_atom(name)
        return self._atoms[name]

    def _root_windows(self, atom_name: str) -> List[int]:
        try:
            prop = self._root.get_full_property(self._atom(atom_name), X.AnyPropertyType)
        except XError as e:
            raise WindowQueryError(f"Cannot read {atom_name}: {e}") from e
        if not prop or not prop.value:
            return []
        return [w for w in prop.value if w]

    def windows(self) -> List[WindowHandle]:
        window_ids = self._root_windows('_NET_CLIENT_LIST_STACKING')
        return [X11Window(self, w) for w in reversed(window_ids)]

    def active_window(self) -> Optional[WindowHandle]:
        window_ids = self._root_windows('_NET_ACTIVE_WINDOW')
        if not window_ids:
            return None
        return X11Window(self, window_ids[0])


class AtspiWindow(WindowHandle):
    """Top-level accessible window of an application (AT-SPI)."""

    def __init__(self, app, window):
        self._app = app
        self._window = window

    def name(self) -> str:
        try:
            return self._app.get_name() or ""
        except GLib.Error as e:
            raise WindowQueryError(f"Cannot read application name: {e}") from e

    def state_set(self) -> Set[str]:
        try:
            states = self._window.get_state_set()
            if not states:
                return set()
            return {s.value_nick.lower() for s in states.get_states()}
        except GLib.Error as e:
            raise WindowQueryError(f"Cannot read window state: {e}") from e

    def geometry(self) -> Tuple[int, int, int, int]:
        try:
            comp = self._window.get_component_iface()
            if comp is None:
                raise WindowQueryError("Window has no component interface")
            rect = comp.get_extents(Atspi.CoordType.SCREEN)
            return rect.x, rect.y, rect.width, rect.height
        except GLib.Error as e:
            raise WindowQueryError(f"Cannot read window geometry: {e}") from e


class AtspiWindowManager(WindowManager):
    """Window queries through the accessibility bus, for Wayland sessions."""

    def __init__(self):
        if not ATSPI_AVAILABLE:
            raise WindowManagerError("AT-SPI not available")
        try:
            Atspi.get_desktop(0)
        except GLib.Error as e:
            raise WindowManagerError(f"Cannot connect to AT-SPI: {e}") from e

    def windows(self) -> List[WindowHandle]:
        desktop = Atspi.get_desktop(0)
        result = []
        for i in range(desktop.get_child_count()):
            app = desktop.get_child_at_index(i)
            if not app:
                continue
            for j in range(app.get_child_count()):
                window = app.get_child_at_index(j)
                if window:
                    result.append(AtspiWindow(app, window))
        return result

    def active_window(self) -> Optional[WindowHandle]:
        for window in self.windows():
            try:
                if 'active' in window.state_set():
                    return window
            except WindowQueryError:
                continue
        return None


def open_window_manager() -> WindowManager:
    """
    Connect to the best available window manager backend.

    Raises:
        WindowManagerError: If no backend can be used
    """
    if IS_WAYLAND and ATSPI_AVAILABLE:
        try:
            manager = AtspiWindowManager()
            logger.info("Using window manager backend: AT-SPI")
            return manager
        except WindowManagerError as e:
            logger.warning(f"Failed to initialize AT-SPI backend: {e}")

    manager = X11WindowManager()
    logger.info("Using window manager backend: X11/Xlib")
    return manager


class FullscreenDetector:
    """
    Reports the foreground fullscreen window, if any.

    In scan-all mode the first eligible window in the manager's order wins.
    With several fullscreen windows at once the winner therefore depends on the
    backend: stacking order on X11, accessibility tree order (not stable) on
    AT-SPI.
    """

    def __init__(
        self,
        window_manager: WindowManager,
        ignore_apps: Iterable[str] = (),
        focused_only: bool = False,
    ):
        self.window_manager = window_manager
        self.ignore_apps = [app for app in ignore_apps if app]
        self.focused_only = focused_only

    def _candidates(self) -> List[WindowHandle]:
        if self.focused_only:
            window = self.window_manager.active_window()
            return [window] if window is not None else []
        return self.window_manager.windows()

    def _check_window(self, window: WindowHandle) -> Optional[FullscreenState]:
        try:
            name = window.name()
            if any(app in name for app in self.ignore_apps):
                return None
            if FULLSCREEN not in window.state_set():
                return None
            x, y, width, height = window.geometry()
        except WindowQueryError as e:
            logger.debug(f"Skipping window: {e}")
            return None
        return FullscreenState(Extent(x, y, width, height), name)

    def detect(self) -> Optional[FullscreenState]:
        """Return the current fullscreen state, None if nothing is fullscreen."""
        try:
            candidates = self._candidates()
        except WindowQueryError as e:
            logger.warning(f"Cannot list windows: {e}")
            return None

        for window in candidates:
            state = self._check_window(window)
            if state is not None:
                return state
        return None


def check_window_tools() -> Tuple[bool, str]:
    """
    Check if required window management tools are available.

    Returns:
        Tuple of (tools_available, message)
    """
    if IS_WAYLAND and ATSPI_AVAILABLE:
        return True, "Wayland window monitoring: AT-SPI (native)"

    if XLIB_AVAILABLE:
        if IS_WAYLAND:
            return True, "python-xlib available, XWayland windows only"
        return True, "python-xlib available for X11 window monitoring"

    return False, (
        "No window monitoring tools available.\n"
        "Install python-xlib: pip install python-xlib"
    )

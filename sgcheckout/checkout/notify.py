import enum
import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


class ToastVariant(str, enum.Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Toast:
    title: str
    description: str = ""
    variant: ToastVariant = ToastVariant.DEFAULT


class Notifier:
    """Collects user-facing notifications and fans them out to listeners."""

    def __init__(self):
        self.toasts = []
        self._listeners = []

    def add_listener(self, listener: Callable[[Toast], None]):
        self._listeners.append(listener)

    def toast(self, title: str, description: str = "", variant: ToastVariant = ToastVariant.DEFAULT) -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        self.toasts.append(toast)
        if variant == ToastVariant.DESTRUCTIVE:
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)
        for listener in list(self._listeners):
            listener(toast)
        return toast

    def error(self, title: str, description: str = "") -> Toast:
        return self.toast(title, description, ToastVariant.DESTRUCTIVE)

    def titles(self) -> list:
        return [t.title for t in self.toasts]

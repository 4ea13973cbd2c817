"""Change notification over SMTP."""

from .notifier import ChangeNotifier, NotificationSettings, load_template

__all__ = ["ChangeNotifier", "NotificationSettings", "load_template"]

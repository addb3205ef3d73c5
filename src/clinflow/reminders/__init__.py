from clinflow.reminders.manager import ReminderManager
from clinflow.reminders.models import Reminder

__all__ = ["Reminder", "ReminderManager"]

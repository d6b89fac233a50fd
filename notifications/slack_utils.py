import logging
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError
from django.conf import settings

logger = logging.getLogger(__name__)


class SlackNotificationService:
    def __init__(self):
        self.token = getattr(settings, 'SLACK_BOT_TOKEN', None)
        self.client = WebClient(token=self.token)
        self.management_channel = getattr(settings, 'SLACK_MANAGEMENT_CHANNEL_ID', None)

    @property
    def enabled(self):
        return bool(self.token)

    def get_management_channel_id(self):
        return self.management_channel

    def get_slack_id_by_email(self, email):
        """
        Looks up a Slack User ID by their email address.
        """
        try:
            response = self.client.users_lookupByEmail(email=email)
            if response["ok"]:
                return response["user"]["id"]
        except SlackApiError as e:
            logger.error(f"Error looking up Slack user by email {email}: {e.response['error']}")
        return None

    def get_or_set_slack_id(self, employee):
        """
        Gets the slack_user_id from the employee model or fetches and saves it if missing.
        """
        if employee.slack_user_id:
            return employee.slack_user_id

        slack_id = self.get_slack_id_by_email(employee.email)
        if slack_id:
            employee.slack_user_id = slack_id
            employee.save(update_fields=['slack_user_id'])
            return slack_id
        return None

    def send_message(self, employee_or_channel, message_text, blocks=None):
        """
        Sends a message to an employee (DM) or a specific channel ID.
        Supports rich text blocks for interactive components.
        """
        if not self.enabled:
            logger.debug("SLACK_BOT_TOKEN not configured, Slack message skipped.")
            return False

        if isinstance(employee_or_channel, str):
            target_id = employee_or_channel
        else:
            target_id = self.get_or_set_slack_id(employee_or_channel)

        if not target_id:
            logger.warning("No target ID found for message.")
            return False

        try:
            self.client.chat_postMessage(
                channel=target_id,
                text=message_text,
                blocks=blocks
            )
            return True
        except SlackApiError as e:
            logger.error(f"Error sending Slack message: {e.response['error']}")
            return False

    def notify_management(self, message_text, blocks=None):
        """ Sends a message to the pre-configured management channel. """
        if not self.management_channel:
            logger.warning("SLACK_MANAGEMENT_CHANNEL_ID not configured.")
            return False
        return self.send_message(self.management_channel, message_text, blocks=blocks)

    @staticmethod
    def notify_timesheet_status(employee, day, status_label, entry_count):
        """ Hi Name, your N timesheet entries for Date are Approved. """
        service = SlackNotificationService()
        message = (
            f"Hi {employee.first_name}\n"
            f" Your {entry_count} timesheet entr{'y' if entry_count == 1 else 'ies'} for {day} "
            f"{'is' if entry_count == 1 else 'are'} {status_label}."
        )
        return service.send_message(employee, message)

    @staticmethod
    def notify_management_day_submitted(employee, day, entries):
        """ Sends an interactive day submission to the management channel. """
        service = SlackNotificationService()
        total_hours = sum(float(entry.total_hours or 0) for entry in entries)
        lines = "\n".join(
            f"• {entry.project_name}: {entry.task_description} ({entry.total_hours}h)"
            for entry in entries
        )
        value = f"{employee.id}_{day.isoformat()}"
        blocks = [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        f"*Timesheet Submitted*\n"
                        f"*Employee:* {employee.get_full_name()} ({employee.employee_id})\n"
                        f"*Date:* {day}\n"
                        f"*Hours:* {total_hours:g}\n"
                        f"{lines}"
                    )
                }
            },
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "Approve"},
                        "style": "primary",
                        "value": f"approve_timesheet_day_{value}",
                        "action_id": "approve_timesheet_day"
                    },
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "Reject"},
                        "style": "danger",
                        "value": f"reject_timesheet_day_{value}",
                        "action_id": "reject_timesheet_day"
                    }
                ]
            }
        ]
        return service.notify_management(f"Timesheet submitted by {employee.get_full_name()}", blocks=blocks)

    @staticmethod
    def notify_task_postponed(postponement):
        """ Posts a postponement summary to the management channel. """
        service = SlackNotificationService()
        actor = postponement.actor
        message = (
            f"Task {postponement.task_id} postponed by {actor.get_full_name() if actor else 'unknown'}\n"
            f" From: {postponement.previous_due_date or 'N/A'}\n"
            f" To: {postponement.new_due_date}\n"
            f" Reason: {postponement.reason}"
        )
        return service.notify_management(message)

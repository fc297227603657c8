"""
Sample Feedback
===============

Seed batch used when ingestion is requested without items. One block per
source channel, so a first run exercises every source and most categories.
"""

from typing import List

from src.feedback.domain import FeedbackItem


def _items(source: str, rows: List[tuple]) -> List[FeedbackItem]:
    return [
        FeedbackItem(source=source, source_id=source_id, author=author, text=text)
        for source_id, author, text in rows
    ]


# Community chat: short and casual
DISCORD = _items("discord", [
    ("d001", "user123", "App keeps crashing when I try to upload photos. Happens every time now."),
    ("d002", "gamer42", "Dark mode is great, finally I can use this at night"),
    ("d003", "newbie", "How do I export my project? Cant find the button anywhere"),
    ("d004", "poweruser", "The upload feature has been broken for 3 days now. Anyone else?"),
    ("d005", "artist", "Upload keeps failing with large files. 50MB limit is too low"),
    ("d006", "dev_mike", "API rate limits are way too aggressive. Getting 429s constantly"),
    ("d007", "casual_user", "Love the new dashboard redesign!"),
])

# Issue tracker: technical reports and feature requests
GITHUB = _items("github", [
    ("g001", "dev-jane", "TypeError in ImageUpload component when handling PNG files larger than 10MB. Stack trace attached."),
    ("g002", "security-bob", "XSS vulnerability in profile page via unsanitized user bio field. Needs immediate patching."),
    ("g003", "a11y-expert", "Missing ARIA labels on main navigation. Screen readers cannot parse the menu structure."),
    ("g004", "mobile-dev", "iOS app crashes on launch for users on iOS 15.x. Crash logs show memory allocation failure."),
    ("g005", "contributor", "Feature request: Add webhook support for real-time notifications"),
    ("g006", "enterprise-user", "SSO integration broken after latest update. All our users locked out."),
])

# Public social posts
TWITTER = _items("twitter", [
    ("t001", "@techfan", "This app is painfully slow. Takes 10 seconds to load a simple page."),
    ("t002", "@happyuser", "Best update yet! The new features are exactly what I needed"),
    ("t003", "@frustrated", "Lost all my work when the app crashed. No autosave? Its 2024!"),
    ("t004", "@devlife", "Memory usage is insane. 2GB RAM for a simple text editor?"),
    ("t005", "@designer", "The UI feels dated. Competitors have moved way ahead."),
    ("t006", "@startup_ceo", "Our whole team relies on this tool. Please fix the sync issues!"),
])

# Support desk tickets
SUPPORT = _items("support", [
    ("s001", "enterprise_corp", "50 users unable to access platform. Dashboard shows subscription active but getting access denied. This is blocking our entire team."),
    ("s002", "small_business", "Export functionality not working. Need to download our data for compliance audit due Friday."),
    ("s003", "new_customer", "Pricing page is confusing. What exactly is included in the Pro plan? Limits are unclear."),
    ("s004", "agency_client", "Billing charged twice this month. Need immediate refund and explanation."),
    ("s005", "edu_institution", "Cannot add more than 100 users to our organization. Is this a bug or a limit?"),
])

# Community forum: longer feature discussions
FORUM = _items("forum", [
    ("f001", "veteran_user", "Been using this for 2 years. The one feature thats always missing is proper mobile sync. Desktop changes dont appear on mobile for hours."),
    ("f002", "newcomer", "Onboarding is overwhelming. First screen has 15 options. Needs a guided tour for new users."),
    ("f003", "developer", "Would love to see a plugin API. Could build custom integrations for our workflow."),
    ("f004", "power_user", "Keyboard shortcuts are inconsistent. Ctrl+S saves in editor but not in settings."),
    ("f005", "team_lead", "Need better permission controls. Currently its all-or-nothing for team members."),
])


def sample_feedback() -> List[FeedbackItem]:
    """The full seed batch, in ingestion order."""
    return [*DISCORD, *GITHUB, *TWITTER, *SUPPORT, *FORUM]

"""
content/spam.py -- Keyword spam check for contact form submissions.

A plain substring match over subject and message, case-insensitive. It flags
messages for the admin's inbox filter; it never rejects a submission.
"""

SPAM_KEYWORDS = (
    "viagra",
    "casino",
    "lottery",
    "winner",
    "congratulations",
    "click here",
    "free money",
    "make money fast",
    "work from home",
    "guaranteed",
    "no risk",
    "limited time",
    "act now",
)


def looks_like_spam(subject: str, message: str) -> bool:
    text = f"{subject} {message}".lower()
    return any(keyword in text for keyword in SPAM_KEYWORDS)

"""mail/ -- Outbound email for Folio (verification links, contact notifications).

Layer rule: mail/ imports only stdlib, third-party libraries, and core/.
auth/ services and api/ routes receive a Mailer instance; mail/ never imports them.
"""

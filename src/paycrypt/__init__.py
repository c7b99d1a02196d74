"""PayCrypt - e-mail triggered wallet payments.

Receives payment and balance-inquiry e-mails, drives the wallet ledger and
replies to the participants with the outcome.
"""

__version__ = "0.1.0"

"""Wallet Session Meta information.
   Wallet Session authenticates a wallet address and keeps an encrypted,
   device-bound copy of user dashboard data in sync with a remote store.
"""
__title__ = 'wallet_session'
__description__ = (
   'Wallet signature authentication with a device-bound encrypted '
   'local-first dashboard cache.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/wallet-session'

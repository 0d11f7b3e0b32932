# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Disposable mailbox relay and session client.

Features:
    - Stateless HTTP relay towards a mail provisioning API (mail.tm style)
    - Bearer header forwarding and JSON/text/empty response normalization
    - Route set mounted under several prefixes at once
    - Async session controller: mailbox creation, credential persistence,
      inbox polling, lazy message detail and deletion
    - Prometheus metrics and a click/rich command line

Example::

    from temp_mail_relay.api import create_app
    from temp_mail_relay.relay import UpstreamRelay

    app = create_app(UpstreamRelay("https://api.mail.tm"))
"""

__version__ = "0.1.0"

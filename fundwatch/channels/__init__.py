"""
Delivery channels.

- base: sender protocols the dispatcher depends on
- push: Expo push notifications
- whatsapp: Twilio WhatsApp messages
- webhook: JSON POST to arbitrary URLs
- email: SMTP via aiosmtplib
"""

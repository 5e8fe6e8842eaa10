"""Messaging proxies: Twilio SMS, SendGrid email and NanoBanana image annotation."""

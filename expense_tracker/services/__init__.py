"""
Services package.

Subpackages: storage (transaction and audit stores), mail (SMTP delivery)
and otp (passcode gate). Import from the subpackages directly; the OTP
gate depends on the audit logger, which itself depends on storage.
"""

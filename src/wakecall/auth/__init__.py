"""
Authentication: email OTP login, phone verification, session JWTs.
"""

"""
KYC Submission Verification

This package contains the backend for KYC submission review:
- Session gate and role lookup against Supabase Auth
- Document and selfie intake into Supabase Storage
- AI analysis (OCR, face similarity, fraud risk) through an AI gateway
- Admin review of analysed submissions
"""

__version__ = "1.0.0"

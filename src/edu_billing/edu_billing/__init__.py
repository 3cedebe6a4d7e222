"""Educational center billing package.

Organized by feature modules (billing, garden, staff, attendance, ...) with
pure calculators at the bottom, service/repository layers above them and a
thin Flask controller layer on top.
"""

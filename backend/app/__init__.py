"""
DentalDesk Backend - Dental Clinic Management API

This module provides the backend services for the DentalDesk dashboard,
including patient records, appointments, X-ray and report attachments,
and role-based access for clinic staff.
"""

__version__ = "1.0.0"
__author__ = "DentalDesk Team"

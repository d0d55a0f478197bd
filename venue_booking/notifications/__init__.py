"""Booking email workflow, outbound job queue and delivery tracking"""

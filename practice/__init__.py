"""Practice application for the Osteoflow backend.

This package holds the models, services, serializers, views and route
registrations for a single osteopath practice: patients, consultations,
invoices, emails, surveys and the periodic loopback jobs.
"""

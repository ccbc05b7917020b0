"""
CRM Analytics Service

Dashboard and report metrics derived from the CRM entity store.
"""

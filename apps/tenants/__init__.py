"""
Company (tenant) application: companies, dashboards and the contact form.
"""

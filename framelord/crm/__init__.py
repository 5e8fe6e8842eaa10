"""CRM stores: contacts, notes, tasks and the system log."""

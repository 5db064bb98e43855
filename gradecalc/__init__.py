"""Final grade, GWA and honors calculations behind the grade calculator app."""

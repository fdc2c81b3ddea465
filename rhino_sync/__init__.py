"""Scrape the Rhino staffing schedule and mirror it into Google Calendar."""

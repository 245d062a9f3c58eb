"""
Services Layer

Bracket engine and its persistence:
- heat_sizer, bracket_builder, progression_router and restructurer work on
  plain Bracket values and never touch the database
- bracket_store and bracket_service load, transform and save one bracket
  per (event, class)
- Nothing here depends on HTTP request/response objects
"""

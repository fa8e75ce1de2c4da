"""
WhatsApp Booking Tests

Unit tests run against in-memory fakes (entity store, session backend,
outbound sender) and need no PostgreSQL, Redis or Twilio.

Running Tests:
    # Run everything
    pytest tests -v

    # One module
    pytest tests/unit/test_conversation_engine.py -v

Test Coverage:
    - Intent classification and booking data extraction
    - Session state machine and expiry
    - Availability, validation and response formatting
    - Booking, cancellation and viewing dialogues
    - Webhook, health probes and Twilio delivery
    - Reminder scheduling and delivery
"""

"""Virtual queue service for walk-in customers of a multi-tenant back-office."""

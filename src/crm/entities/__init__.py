"""CRM entities: table schemas, gateways over the data API, page filters."""

"""Business services. Each service owns its transactions and raises application exceptions."""

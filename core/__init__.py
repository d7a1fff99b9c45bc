"""Matrix enumeration, scenario execution and orchestration."""

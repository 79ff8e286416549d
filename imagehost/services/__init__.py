"""Services: trash engine, metadata cascade, folders and maintenance jobs."""

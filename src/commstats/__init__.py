"""Community metrics aggregation, ranking and badge service."""

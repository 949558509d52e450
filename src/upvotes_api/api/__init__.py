"""BuyUpvotes API client."""

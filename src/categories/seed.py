"""Default category taxonomy loaded when the application starts."""

DEFAULT_CATEGORIES = {
    "Food": {
        "Groceries": None,
        "Restaurants": {
            "Japanese restaurants": ["Sushi", "Ramen"],
            "Fast food": None,
        },
    },
    "Housing": ["Rent", "Maintenance"],
    "Utilities": ["Electricity", "Water", "Telecommunication"],
    "Transport": ["Fuel", "Public transport"],
    "Healthcare": None,
    "Lifestyle": ["Haircuts", "Hobbies"],
    "Shopping": ["Clothing", "Books"],
}

"""
Curated fixture records, keyed by entity type.

Each record uses canonical field names; ``FIELD_ALIASES`` maps common
alternative column names onto them.
"""

from __future__ import annotations

from src.nl2table.models import EntityType

FIXTURES: dict[EntityType, tuple[dict[str, str], ...]] = {
    EntityType.MOVIES: (
        {"title": "The Shawshank Redemption", "year": "1994", "director": "Frank Darabont", "genre": "Drama", "rating": "9.3", "runtime": "142"},
        {"title": "The Godfather", "year": "1972", "director": "Francis Ford Coppola", "genre": "Crime", "rating": "9.2", "runtime": "175"},
        {"title": "The Dark Knight", "year": "2008", "director": "Christopher Nolan", "genre": "Action", "rating": "9.0", "runtime": "152"},
        {"title": "Pulp Fiction", "year": "1994", "director": "Quentin Tarantino", "genre": "Crime", "rating": "8.9", "runtime": "154"},
        {"title": "Forrest Gump", "year": "1994", "director": "Robert Zemeckis", "genre": "Drama", "rating": "8.8", "runtime": "142"},
        {"title": "Inception", "year": "2010", "director": "Christopher Nolan", "genre": "Sci-Fi", "rating": "8.8", "runtime": "148"},
        {"title": "The Matrix", "year": "1999", "director": "Lana Wachowski, Lilly Wachowski", "genre": "Sci-Fi", "rating": "8.7", "runtime": "136"},
        {"title": "Goodfellas", "year": "1990", "director": "Martin Scorsese", "genre": "Crime", "rating": "8.7", "runtime": "146"},
        {"title": "Spirited Away", "year": "2001", "director": "Hayao Miyazaki", "genre": "Animation", "rating": "8.6", "runtime": "125"},
        {"title": "Parasite", "year": "2019", "director": "Bong Joon Ho", "genre": "Thriller", "rating": "8.5", "runtime": "132"},
    ),
    EntityType.COMPANIES: (
        {"name": "Apple", "industry": "Technology", "founded": "1976", "headquarters": "Cupertino, CA", "ceo": "Tim Cook", "employees": "161000"},
        {"name": "Microsoft", "industry": "Technology", "founded": "1975", "headquarters": "Redmond, WA", "ceo": "Satya Nadella", "employees": "221000"},
        {"name": "Amazon", "industry": "E-commerce", "founded": "1994", "headquarters": "Seattle, WA", "ceo": "Andy Jassy", "employees": "1525000"},
        {"name": "Alphabet", "industry": "Technology", "founded": "1998", "headquarters": "Mountain View, CA", "ceo": "Sundar Pichai", "employees": "182000"},
        {"name": "Tesla", "industry": "Automotive", "founded": "2003", "headquarters": "Austin, TX", "ceo": "Elon Musk", "employees": "140000"},
        {"name": "Johnson & Johnson", "industry": "Healthcare", "founded": "1886", "headquarters": "New Brunswick, NJ", "ceo": "Joaquin Duato", "employees": "131900"},
        {"name": "JPMorgan Chase", "industry": "Finance", "founded": "2000", "headquarters": "New York, NY", "ceo": "Jamie Dimon", "employees": "309900"},
        {"name": "Walmart", "industry": "Retail", "founded": "1962", "headquarters": "Bentonville, AR", "ceo": "Doug McMillon", "employees": "2100000"},
    ),
    EntityType.PEOPLE: (
        {"name": "Ada Lovelace", "born": "1815", "nationality": "British", "occupation": "Mathematician", "known_for": "First computer program"},
        {"name": "Marie Curie", "born": "1867", "nationality": "Polish-French", "occupation": "Physicist", "known_for": "Radioactivity"},
        {"name": "Alan Turing", "born": "1912", "nationality": "British", "occupation": "Computer scientist", "known_for": "Turing machine"},
        {"name": "Grace Hopper", "born": "1906", "nationality": "American", "occupation": "Computer scientist", "known_for": "COBOL"},
        {"name": "Albert Einstein", "born": "1879", "nationality": "German-American", "occupation": "Physicist", "known_for": "Theory of relativity"},
        {"name": "Katherine Johnson", "born": "1918", "nationality": "American", "occupation": "Mathematician", "known_for": "Orbital mechanics at NASA"},
        {"name": "Nikola Tesla", "born": "1856", "nationality": "Serbian-American", "occupation": "Inventor", "known_for": "Alternating current"},
        {"name": "Rosalind Franklin", "born": "1920", "nationality": "British", "occupation": "Chemist", "known_for": "DNA structure imaging"},
    ),
    EntityType.PRODUCTS: (
        {"name": "iPhone 15", "brand": "Apple", "category": "Smartphone", "price": "799", "release_year": "2023"},
        {"name": "Galaxy S24", "brand": "Samsung", "category": "Smartphone", "price": "799", "release_year": "2024"},
        {"name": "MacBook Air M3", "brand": "Apple", "category": "Laptop", "price": "1099", "release_year": "2024"},
        {"name": "PlayStation 5", "brand": "Sony", "category": "Game console", "price": "499", "release_year": "2020"},
        {"name": "Kindle Paperwhite", "brand": "Amazon", "category": "E-reader", "price": "149", "release_year": "2021"},
        {"name": "AirPods Pro", "brand": "Apple", "category": "Headphones", "price": "249", "release_year": "2022"},
        {"name": "Switch OLED", "brand": "Nintendo", "category": "Game console", "price": "349", "release_year": "2021"},
        {"name": "Pixel 8", "brand": "Google", "category": "Smartphone", "price": "699", "release_year": "2023"},
    ),
    EntityType.SPORTS: (
        {"team": "Los Angeles Lakers", "league": "NBA", "city": "Los Angeles", "founded": "1947", "championships": "17"},
        {"team": "Boston Celtics", "league": "NBA", "city": "Boston", "founded": "1946", "championships": "18"},
        {"team": "New York Yankees", "league": "MLB", "city": "New York", "founded": "1901", "championships": "27"},
        {"team": "Real Madrid", "league": "La Liga", "city": "Madrid", "founded": "1902", "championships": "36"},
        {"team": "Manchester United", "league": "Premier League", "city": "Manchester", "founded": "1878", "championships": "20"},
        {"team": "New England Patriots", "league": "NFL", "city": "Foxborough", "founded": "1959", "championships": "6"},
        {"team": "Montreal Canadiens", "league": "NHL", "city": "Montreal", "founded": "1909", "championships": "24"},
        {"team": "Chicago Bulls", "league": "NBA", "city": "Chicago", "founded": "1966", "championships": "6"},
    ),
}

# Alternative column names, normalized (lowercase alphanumerics only)
FIELD_ALIASES: dict[EntityType, dict[str, str]] = {
    EntityType.MOVIES: {
        "name": "title",
        "movie": "title",
        "movietitle": "title",
        "releaseyear": "year",
        "imdbrating": "rating",
        "score": "rating",
        "length": "runtime",
        "duration": "runtime",
    },
    EntityType.COMPANIES: {
        "company": "name",
        "companyname": "name",
        "sector": "industry",
        "hq": "headquarters",
        "location": "headquarters",
        "foundedyear": "founded",
        "employeecount": "employees",
    },
    EntityType.PEOPLE: {
        "fullname": "name",
        "birthyear": "born",
        "country": "nationality",
        "profession": "occupation",
        "job": "occupation",
        "knownfor": "known_for",
        "achievement": "known_for",
    },
    EntityType.PRODUCTS: {
        "product": "name",
        "productname": "name",
        "manufacturer": "brand",
        "type": "category",
        "cost": "price",
        "priceusd": "price",
        "year": "release_year",
        "releaseyear": "release_year",
    },
    EntityType.SPORTS: {
        "name": "team",
        "teamname": "team",
        "location": "city",
        "titles": "championships",
        "foundedyear": "founded",
    },
}

"""Domain layer - entities, enums and errors"""

"""
Subjects module: Subjects CRUD plus user and group assignment.
"""

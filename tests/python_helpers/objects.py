"""Module imported into the child interpreter by the test harness."""

A_STRING = "STRING"
AN_INT = 1
A_CHAR = "a"
A_FLOAT = 1.0
AN_ARRAY = [AN_INT, A_CHAR, A_FLOAT, A_STRING]
A_DICT = {
    AN_INT: AN_INT,
    A_CHAR: A_CHAR,
    "sym": A_FLOAT,
    A_STRING: A_STRING,
}


def add(a1, a2):
    return a1 + a2


class Point:
    def __init__(self, x=0, y=0):
        self.x = x
        self.y = y

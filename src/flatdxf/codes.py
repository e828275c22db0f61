from __future__ import annotations

STRUCTURE = 0
TEXT = 1
NAME = 2
TEXT_3 = 3
HANDLE = 5
LINE_TYPE = 6
LAYER = 8
HEADER_VARIABLE = 9

X = 10
Y = 20
Z = 30
X1 = 11
Y1 = 21
Z1 = 31
X2 = 12
Y2 = 22
Z2 = 32
X3 = 13
Y3 = 23
Z3 = 33

ELEVATION = 38
THICKNESS = 39
FLOAT_40 = 40
FLOAT_41 = 41
FLOAT_42 = 42
FLOAT_43 = 43
FLOAT_45 = 45
LINE_TYPE_SCALE = 48
LINE_TYPE_SPACING = 49
ANGLE_50 = 50
ANGLE_51 = 51
ANGLE_53 = 53

VISIBLE = 60
COLOR = 62
PAPER_SPACE = 67
INT_69 = 69
FLAGS = 70
INT_71 = 71
INT_72 = 72
INT_73 = 73
INT_74 = 74
INT_75 = 75
INT_90 = 90

SUBCLASS_MARKER = 100
CONTROL_STRING = 102

NORMAL_X = 210
NORMAL_Y = 220
NORMAL_Z = 230
OWNER_ID = 330

COLOR_BY_BLOCK = 0
COLOR_BY_LAYER = 256
DEFAULT_COLOR = 7

LINE_TYPE_BY_LAYER = "BYLAYER"
LINE_TYPE_BY_BLOCK = "BYBLOCK"
LINE_TYPE_CONTINUOUS = "CONTINUOUS"

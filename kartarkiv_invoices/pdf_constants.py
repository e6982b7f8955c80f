"""Layout constants for the invoice PDF (points, top-left origin, A4 portrait)."""

PAGE_FORMAT = "A4"
PAGE_W = 595.28
PAGE_H = 841.89

MARGIN = 40.0
CONTENT_W = PAGE_W - MARGIN * 2

# Header band
HEADER_H = 150.0
HEADER_STRIP_H = 22.0
SELLER_NAME_Y = 50.0
LOGO_Y = 18.0
LOGO_H = 40.0
SELLER_ORG_Y = 88.0
INVOICE_TITLE_Y = 112.0
INVOICE_NUMBER_OFFSET = 70.0

# Metadata panel inside the header band
META_W = 232.0
META_H = 128.0
META_X = PAGE_W - MARGIN - META_W
META_TOP = 12.0
META_FIRST_LABEL_Y = META_TOP + 16.0
META_VALUE_OFFSET = 12.0
META_ROW_H = 24.0
META_PAD_X = 14.0

# Giro slip and the region reserved for it
SLIP_H = 260.0
SLIP_BOTTOM_MARGIN = 32.0
SLIP_GAP = 24.0
PROTECTED_BOTTOM = SLIP_BOTTOM_MARGIN + SLIP_H + SLIP_GAP
CONTENT_LIMIT_Y = PAGE_H - PROTECTED_BOTTOM
SLIP_Y = PAGE_H - SLIP_BOTTOM_MARGIN - SLIP_H
SLIP_LEFT_W = 210.0
SLIP_HEADER_H = 28.0
SLIP_FIRST_LABEL_Y = SLIP_HEADER_H + 18.0
SLIP_ROW_SPACING = 42.0
SLIP_FIELD_H = 22.0
SLIP_FIELD_OFFSET = 4.0
SLIP_PAD_X = 12.0
KID_BOX_W = 16.0
KID_BOX_H = 20.0
KID_BOX_GAP = 2.0
KID_MIN_BOXES = 10

# Recipient/issuer box
RECIPIENT_TOP_GAP = 20.0
RECIPIENT_H_WITH_EMAIL = 86.0
RECIPIENT_H = 66.0
RECIPIENT_AFTER_GAP = 20.0
HEADING_GAP = 16.0

# Item table
COLUMN_SHARES = (0.5, 0.16, 0.14, 0.20)
TABLE_HEADER_H = 28.0
TABLE_TOTAL_H = 30.0
ROW_MIN_H = 22.0
ROW_LINE_H = 13.0
ROW_PAD = 12.0
CELL_PAD = 12.0

# Payment instructions panel
INFO_TOP_GAP = 20.0
INFO_FIRST_LINE_Y = 37.0
INFO_LINE_H = 13.0
INFO_BOTTOM_PAD = 12.0

FONT_SIZE_SMALL = 9
FONT_SIZE_BODY = 11
FONT_SIZE_NORMAL = 12
FONT_SIZE_HEADING = 14
FONT_SIZE_TITLE = 18
FONT_SIZE_BRAND = 26

COLOR_BRAND = (23, 131, 76)
COLOR_BRAND_DARK = (15, 78, 47)
COLOR_BRAND_SOFT = (242, 251, 246)
COLOR_SLATE = (71, 85, 105)
COLOR_TABLE_BORDER = (210, 224, 216)
COLOR_GIRO = (252, 227, 125)
COLOR_TEXT = (24, 42, 30)
COLOR_WHITE = (255, 255, 255)

PLACEHOLDER_DESCRIPTION = "Ingen fakturalinjer"
DEFAULT_DESCRIPTION = "Linje"

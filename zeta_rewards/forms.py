"""
Request payload forms.

Flask-WTF wraps JSON request bodies as form data, so the API validates its
payloads with ordinary WTForms forms. CSRF is off for every form here: the
API authenticates with bearer tokens, not cookies.
"""

import re

from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, IntegerField, DecimalField, DateField, TextAreaField, BooleanField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional, AnyOf, Regexp, StopValidation

from zeta_rewards import errors


EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'
INTEGER_PATTERN = re.compile(r'^\s*-?[0-9]+\s*$')


class ApiForm(FlaskForm):
    class Meta:
        csrf = False


# -------------------- JSON-AWARE FIELDS --------------------

class StrictFieldMixin:
    """
    JSON bodies keep their native types in the form data, so the stock
    WTForms fields would truncate 7.9 to 7, read true as 1, or hand an int
    to a string validator. These fields turn a value of the wrong type into
    a field error that stops the validator chain. A JSON null counts as not
    sent.
    """
    type_error = 'Not a valid string value.'
    type_mismatch = False

    def accepts(self, value):
        return isinstance(value, str)

    def process_formdata(self, valuelist):
        self.type_mismatch = False
        if valuelist and valuelist[0] is None:
            self.raw_data = []
            return
        if valuelist and (isinstance(valuelist[0], bool) or not self.accepts(valuelist[0])):
            self.data = None
            self.type_mismatch = True
            raise ValueError(self.gettext(self.type_error))
        super().process_formdata(valuelist)

    def pre_validate(self, form):
        if self.type_mismatch:
            raise StopValidation()
        super().pre_validate(form)


class StrictStringField(StrictFieldMixin, StringField):
    pass


class StrictTextAreaField(StrictFieldMixin, TextAreaField):
    pass


class StrictPasswordField(StrictFieldMixin, PasswordField):
    pass


class StrictDateField(StrictFieldMixin, DateField):
    type_error = 'Not a valid date value.'


class StrictIntegerField(StrictFieldMixin, IntegerField):
    """Accepts JSON integers and digit strings; floats and booleans are errors."""
    type_error = 'Not a valid integer value.'

    def accepts(self, value):
        if isinstance(value, int):
            return True
        return isinstance(value, str) and INTEGER_PATTERN.match(value) is not None


class StrictDecimalField(StrictFieldMixin, DecimalField):
    type_error = 'Not a valid decimal value.'

    def accepts(self, value):
        return isinstance(value, (int, float, str))


def parse_form(form_cls):
    """Instantiate ``form_cls`` from the current request and validate it.

    Raises errors.ValidationError carrying the first field error.
    """
    form = form_cls()
    if not form.validate():
        field_name, messages = next(iter(form.errors.items()))
        raise errors.ValidationError(f"{field_name}: {messages[0]}")
    return form


# -------------------- AUTH --------------------

class SignupForm(ApiForm):
    name = StrictStringField('Name', validators=[DataRequired(), Length(max=100)])
    email = StrictStringField('Email', validators=[DataRequired(), Regexp(EMAIL_PATTERN, message='Invalid email address.')])
    password = StrictPasswordField('Password', validators=[DataRequired(), Length(min=6, max=128)])


class LoginForm(ApiForm):
    email = StrictStringField('Email', validators=[DataRequired()])
    password = StrictPasswordField('Password', validators=[DataRequired()])


class ForgotPasswordForm(ApiForm):
    email = StrictStringField('Email', validators=[DataRequired()])


class PushTokenForm(ApiForm):
    token = StrictStringField('Push Token', validators=[DataRequired(), Length(max=500)])


# -------------------- LEDGER --------------------

class FundBudgetForm(ApiForm):
    points = StrictIntegerField('Points', validators=[InputRequired(), NumberRange(min=1, message='Points must be a positive integer.')])
    point_value = StrictDecimalField('Point Value', places=2, validators=[Optional(), NumberRange(min=0)])


class AllocationForm(ApiForm):
    manager_id = StrictIntegerField('Manager', validators=[InputRequired()])
    points = StrictIntegerField('Points', validators=[InputRequired(), NumberRange(min=1, message='Points must be a positive integer.')])


class IssueRewardForm(ApiForm):
    receiver_id = StrictIntegerField('Receiver', validators=[InputRequired()])
    points = StrictIntegerField('Points', validators=[InputRequired(), NumberRange(min=1, message='Points must be a positive integer.')])
    reason = StrictTextAreaField('Reason', validators=[Optional()])
    reason_id = StrictIntegerField('Reason', validators=[Optional()])
    caption = StrictTextAreaField('Caption', validators=[Optional()])
    image_url = StrictStringField('Image URL', validators=[Optional(), Length(max=500)])


class RedemptionRequestForm(ApiForm):
    reward_id = StrictIntegerField('Reward', validators=[InputRequired()])


class ResolveRedemptionForm(ApiForm):
    status = StrictStringField('Status', validators=[
        DataRequired(),
        AnyOf(['approved', 'declined'], message='Status must be approved or declined.'),
    ])
    decline_reason = StrictTextAreaField('Decline Reason', validators=[Optional()])


# -------------------- ADMINISTRATION --------------------

class ApprovalForm(ApiForm):
    approved = BooleanField('Approved')


class UpdateUserForm(ApiForm):
    role = StrictStringField('Role', validators=[Optional(), AnyOf(['admin', 'manager', 'employee'])])
    manager_id = StrictIntegerField('Manager', validators=[Optional()])
    department_id = StrictIntegerField('Department', validators=[Optional()])
    date_of_joining = StrictDateField('Date of Joining', format='%Y-%m-%d', validators=[Optional()])
    employee_id = StrictStringField('Employee ID', validators=[Optional(), Length(max=50)])


class DepartmentForm(ApiForm):
    name = StrictStringField('Department Name', validators=[DataRequired(), Length(max=100)])


class RewardReasonForm(ApiForm):
    reason = StrictStringField('Reason', validators=[DataRequired(), Length(max=255)])
    description = StrictTextAreaField('Description', validators=[Optional()])
    img = StrictStringField('Image URL', validators=[Optional(), Length(max=500)])


class RewardCategoryForm(ApiForm):
    category_name = StrictStringField('Category Name', validators=[DataRequired(), Length(max=100)])
    description = StrictTextAreaField('Description', validators=[Optional()])
    img = StrictStringField('Image URL', validators=[Optional(), Length(max=500)])


class RewardForm(ApiForm):
    title = StrictStringField('Title', validators=[DataRequired(), Length(max=200)])
    description = StrictTextAreaField('Description', validators=[Optional()])
    points_required = StrictIntegerField('Points Required', validators=[InputRequired(), NumberRange(min=1)])
    category_id = StrictIntegerField('Category', validators=[Optional()])


# Partial updates: every field optional, at least one must be sent

class RewardReasonUpdateForm(ApiForm):
    reason = StrictStringField('Reason', validators=[Optional(), Length(max=255)])
    description = StrictTextAreaField('Description', validators=[Optional()])
    img = StrictStringField('Image URL', validators=[Optional(), Length(max=500)])


class RewardCategoryUpdateForm(ApiForm):
    category_name = StrictStringField('Category Name', validators=[Optional(), Length(max=100)])
    description = StrictTextAreaField('Description', validators=[Optional()])
    img = StrictStringField('Image URL', validators=[Optional(), Length(max=500)])


class RewardUpdateForm(ApiForm):
    title = StrictStringField('Title', validators=[Optional(), Length(max=200)])
    description = StrictTextAreaField('Description', validators=[Optional()])
    points_required = StrictIntegerField('Points Required', validators=[Optional(), NumberRange(min=1)])
    category_id = StrictIntegerField('Category', validators=[Optional()])


def submitted_fields(form):
    """Names of the fields that carried a non-empty value in the request."""
    return [
        name for name, field in form._fields.items()
        if field.raw_data and field.raw_data[0] not in (None, '')
    ]


# -------------------- EMPLOYEE SELF-SERVICE --------------------

class ProfileForm(ApiForm):
    name = StrictStringField('Name', validators=[Optional(), Length(max=100)])
    contact_info = StrictStringField('Contact Info', validators=[Optional(), Length(max=255)])
    profile_picture = StrictStringField('Profile Picture URL', validators=[Optional(), Length(max=500)])


class PasswordChangeForm(ApiForm):
    current_password = StrictPasswordField('Current Password', validators=[DataRequired()])
    new_password = StrictPasswordField('New Password', validators=[DataRequired(), Length(min=6, max=128)])


class NotificationRequestForm(ApiForm):
    message = StrictTextAreaField('Message', validators=[DataRequired(), Length(max=500)])


# -------------------- FEED --------------------

class PostForm(ApiForm):
    receiver_id = StrictIntegerField('Receiver', validators=[InputRequired()])
    points = StrictIntegerField('Points', validators=[Optional(), NumberRange(min=0)])
    reason = StrictTextAreaField('Reason', validators=[Optional()])
    caption = StrictTextAreaField('Caption', validators=[Optional()])
    image_url = StrictStringField('Image URL', validators=[Optional(), Length(max=500)])


class PostEditForm(ApiForm):
    reason = StrictTextAreaField('Reason', validators=[Optional()])
    caption = StrictTextAreaField('Caption', validators=[Optional()])
    image_url = StrictStringField('Image URL', validators=[Optional(), Length(max=500)])


class CommentForm(ApiForm):
    comment_text = StrictTextAreaField('Comment', validators=[DataRequired(), Length(max=2000)])

"""
Quote Intake — HTML Templates
Kept apart from dashboard.py so the routes stay readable.
"""

BASE_CSS = """
:root{--bg:#f8fafc;--sf:#ffffff;--sf2:#f1f5f9;--bd:#e2e8f0;--tx:#1f2937;--tx2:#6b7280;
--ac:#3b82f6;--ac2:#2563eb;--gn:#10b981;--rd:#ef4444;--r:12px}
*{margin:0;padding:0;box-sizing:border-box}
body{font-family:'DM Sans',Arial,sans-serif;background:var(--bg);color:var(--tx);min-height:100vh}
a{color:var(--ac);text-decoration:none}
.hdr{background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);padding:28px;text-align:center;color:#fff}
.hdr h1{font-size:26px;font-weight:700}
.hdr p{color:#e2e8f0;margin-top:6px}
.ctr{max-width:1100px;margin:0 auto;padding:24px 20px}
.grid{display:grid;grid-template-columns:1.4fr 1fr;gap:18px}
@media(max-width:860px){.grid{grid-template-columns:1fr}}
.card{background:var(--sf);border:1px solid var(--bd);border-radius:var(--r);padding:20px;margin-bottom:16px}
.card-t{font-size:13px;font-weight:700;color:var(--tx2);text-transform:uppercase;letter-spacing:1px;margin-bottom:14px}
.cat{border-top:1px solid var(--bd);padding:12px 0}
.cat:first-of-type{border-top:none;padding-top:0}
.cat h3{font-size:15px;margin-bottom:2px}
.cat p{font-size:12px;color:var(--tx2);margin-bottom:8px}
.svc{display:flex;align-items:center;gap:8px;font-size:14px;padding:4px 0;cursor:pointer}
.fld{margin-bottom:12px}
.fld label{display:block;font-size:12px;font-weight:600;color:var(--tx2);margin-bottom:4px}
.fld input,.fld select,.fld textarea{width:100%;padding:9px 11px;border:1px solid var(--bd);border-radius:8px;font:inherit;background:var(--sf)}
.fld textarea{min-height:90px;resize:vertical}
.picked{font-size:13px;color:var(--tx2);margin-bottom:12px}
.picked li{margin-left:18px}
.btn{display:inline-block;padding:11px 20px;border:none;border-radius:8px;background:var(--ac);color:#fff;font-weight:600;cursor:pointer;width:100%}
.btn:hover{background:var(--ac2)}
.alert{padding:12px 14px;border-radius:8px;margin-bottom:14px;font-size:14px}
.al-s{background:#ecfdf5;border:1px solid var(--gn);color:#065f46}
.al-e{background:#fef2f2;border:1px solid var(--rd);color:#991b1b}
.ref{font-family:'JetBrains Mono',monospace;font-size:12px;color:var(--tx2);margin-top:4px}
"""

PAGE_INTAKE = """
<form method="post" action="/" id="intake-form">
<input type="hidden" name="_csrf_token" value="{{ csrf_token() }}">
<div class="grid">
 <div class="card">
  <div class="card-t">Choose your services</div>
  {% for cat in catalog %}
  <div class="cat">
   <h3>{{ cat.title }}</h3>
   <p>{{ cat.description }}</p>
   {% for svc in cat.services %}
   <label class="svc">
    <input type="checkbox" name="services" value="{{ svc.id }}" data-testid="svc-{{ svc.id }}"
     {% if svc.id in selected %}checked{% endif %}>
    {{ svc.title }}
   </label>
   {% endfor %}
  </div>
  {% endfor %}
 </div>

 <div>
  <div class="card">
   <div class="card-t">Your request</div>
   {% if success_message %}
    <div class="alert al-s" data-testid="intake-success">{{ success_message }}
     {% if request_number %}<div class="ref">Reference {{ request_number }}</div>{% endif %}
    </div>
   {% endif %}
   {% if error_message %}
    <div class="alert al-e" data-testid="intake-error">{{ error_message }}</div>
   {% endif %}

   {% if selected_titles %}
   <ul class="picked">{% for t in selected_titles %}<li>{{ t }}</li>{% endfor %}</ul>
   {% else %}
   <p class="picked">No services selected yet.</p>
   {% endif %}

   <div class="fld"><label for="name">Name *</label>
    <input id="name" name="name" value="{{ form.name }}" autocomplete="name"></div>
   <div class="fld"><label for="company">Company</label>
    <input id="company" name="company" value="{{ form.company }}" autocomplete="organization"></div>
   <div class="fld"><label for="email">Email *</label>
    <input id="email" name="email" type="email" value="{{ form.email }}" autocomplete="email"></div>
   <div class="fld"><label for="phone">Phone</label>
    <input id="phone" name="phone" value="{{ form.phone }}" autocomplete="tel"></div>
   <div class="fld"><label for="budget">Budget</label>
    <select id="budget" name="budget">
     <option value="">Select budget</option>
     {% for value, label in budget_options %}
     <option value="{{ value }}" {% if form.budget == value %}selected{% endif %}>{{ label }}</option>
     {% endfor %}
    </select></div>
   <div class="fld"><label for="timeline">Timeline</label>
    <select id="timeline" name="timeline">
     <option value="">Select timeline</option>
     {% for value, label in timeline_options %}
     <option value="{{ value }}" {% if form.timeline == value %}selected{% endif %}>{{ label }}</option>
     {% endfor %}
    </select></div>
   <div class="fld"><label for="message">Message</label>
    <textarea id="message" name="message">{{ form.message }}</textarea></div>

   <button type="submit" class="btn" data-testid="intake-submit">Request a quote</button>
  </div>
 </div>
</div>
</form>
<script>
document.getElementById('intake-form').addEventListener('submit', function(){
 var b = this.querySelector('button[type=submit]');
 b.disabled = true; b.textContent = 'Sending...';
});
</script>
"""
